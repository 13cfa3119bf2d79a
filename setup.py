"""
Setup script for the antichess AI package.

This script allows the package to be installed using pip.
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="antichess-ai",
    version="0.1.0",
    description="Antichess engine with Monte Carlo Tree Search and a proof-number opening book",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["main", "play"],
    package_data={"config": ["*.yaml"]},
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Topic :: Scientific/Engineering :: Artificial Intelligence",
        "Topic :: Games/Entertainment :: Board Games",
    ],
    python_requires=">=3.8",
    install_requires=[
        "numpy>=1.19.0",
        "python-chess>=1.3.0",
        "pyyaml>=5.3.0",
        "tqdm>=4.46.0",
    ],
    extras_require={
        "test": [
            "pytest>=6.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "antichess-ai=main:main",
            "antichess-ai-play=play:main",
        ],
    },
)
