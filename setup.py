from setuptools import setup, find_packages

setup(
    name="tlang",
    version="0.1.0",
    description="tlang — a small JIT-compiled expression language",
    packages=find_packages(include=["tlang", "tlang.*"]),
    python_requires=">=3.10",
    install_requires=[
        "llvmlite>=0.44.0",
        "PyYAML>=6.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "tlang=tlang.cli:main",
        ],
    },
)
