"""
Setup script for sourcestack project.

Allows development installation with `pip install -e .`
"""

from setuptools import setup, find_packages

setup(
    name="sourcestack",
    version="0.1.0",
    packages=find_packages(include=["sourcestack", "sourcestack.*"]),
    py_modules=["version"],
    python_requires=">=3.11",
    install_requires=[
        "pydantic>=2.5",
        "pydantic-settings>=2.1",
        "python-dotenv>=1.0",
        "tenacity>=8.2",
        "phonenumbers>=8.13",
        "PyMuPDF>=1.23",
        "python-docx>=1.1",
        "google-api-python-client>=2.100",
        "google-auth>=2.23",
        "gspread>=6.0",
        "httplib2>=0.22",
        "requests>=2.31",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "sourcestack=sourcestack.cli:main",
        ],
    },
)
