#!/usr/bin/env python3
"""
Setup configuration for kiosk-cache
Offline license and media cache for a karaoke kiosk
"""

from setuptools import setup, find_packages

# Read README for long description
with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

# Core requirements (always installed)
core_requirements = [
    "aiohttp>=3.9.1",
    "click>=8.1.7",
    "rich-click>=1.7.0",
    "rich>=13.7.0",
    "pyyaml>=6.0.1",
    "python-dotenv>=1.0.0",
    "tqdm>=4.66.1",
]

setup(
    name="kiosk-cache",
    version="0.1.0",
    author="kiosk-cache Team",
    description="Offline-capable activation and video library cache for karaoke kiosks",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["kiosk_cache", "kiosk_cache.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: End Users/Desktop",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Multimedia :: Video",
    ],
    python_requires=">=3.11",
    install_requires=core_requirements,
    extras_require={
        "dev": [
            "pytest>=7.4.3",
            "pytest-asyncio>=0.21.1",
            "black>=23.11.0",
            "flake8>=6.1.0",
            "mypy>=1.7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "kiosk-cache=kiosk_cache.cli:main",
        ],
    },
    keywords="kiosk karaoke offline cache license sync",
)
