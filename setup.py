#!/usr/bin/env python3
"""
Setup script for screenshot2pdf
"""

from setuptools import setup
import os

# Read requirements from requirements.txt
def read_requirements():
    with open('requirements.txt', 'r') as f:
        return [line.strip() for line in f if line.strip() and not line.startswith('#')]

# Read long description from README
def read_long_description():
    if os.path.exists('README.md'):
        with open('README.md', 'r', encoding='utf-8') as f:
            return f.read()
    return "Capture web page elements as screenshots and bind them into a single PDF"

setup(
    name="screenshot2pdf",
    version="1.0.0",
    description="Capture web page elements as screenshots and bind them into a single PDF",
    long_description=read_long_description(),
    long_description_content_type="text/markdown",
    py_modules=[
        "browser",
        "capture_driver",
        "cli",
        "exceptions",
        "fallback_fetcher",
        "main",
        "models",
        "orchestrator",
        "pdf_generator",
        "utils",
    ],
    package_dir={"": "src"},
    install_requires=read_requirements(),
    extras_require={
        "test": ["pytest>=7.0.0"],
    },
    python_requires=">=3.8",
    entry_points={
        "console_scripts": [
            "screenshot2pdf=cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Internet :: WWW/HTTP",
        "Topic :: Multimedia :: Graphics :: Capture :: Screen Capture",
        "Topic :: Utilities",
    ],
    keywords="screenshot selenium pdf-generation cli automation",
    include_package_data=True,
)
