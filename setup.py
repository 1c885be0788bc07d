"""Package setup for gitfeed."""

from setuptools import setup, find_packages

setup(
    name="gitfeed",
    version="1.0.0",
    description="Collect the RSS/Atom feeds of the blogs of the GitHub users someone follows",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "requests>=2.31.0",
        "urllib3>=2.0.0",
        "tqdm>=4.66.0",
        "colorlog>=6.8.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "gitfeed=gitfeed.cli:main",
        ],
    },
)
