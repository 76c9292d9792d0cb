from setuptools import setup, find_packages

setup(
    name="pcbs",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.11",
    install_requires=[
        # Core dependencies
        "sqlalchemy>=2.0",

        # Document processing
        "beautifulsoup4",
        "httpx",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": [
            "pcbs=pcbs.cli:main",
        ],
    },
)
