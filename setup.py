#!/usr/bin/env python3
"""
Setup script for FocusBot - always-on voice front end for a conversational agent
"""
from setuptools import setup, find_packages
import os
import re

# Read the contents of README file
this_directory = os.path.abspath(os.path.dirname(__file__))
with open(os.path.join(this_directory, 'README.md'), encoding='utf-8') as f:
    long_description = f.read()

# Read version from the package or set default
def get_version():
    try:
        with open(os.path.join(this_directory, 'src', 'focusbot', '__init__.py'), 'r') as f:
            content = f.read()
            version_match = re.search(r'__version__ = "([^"]+)"', content)
            if version_match:
                return version_match.group(1)
    except FileNotFoundError:
        pass
    return "1.0.0"

setup(
    name="focusbot",
    version=get_version(),
    author="FocusBot Team",
    author_email="info@focusbot.local",
    description="Wake-word voice loop that relays spoken requests to a conversational reasoning engine",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(where="src", exclude=["tests", "tests.*"]),
    package_dir={"": "src"},
    include_package_data=True,
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: End Users/Desktop",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Multimedia :: Sound/Audio :: Speech",
        "Topic :: Scientific/Engineering :: Artificial Intelligence",
    ],
    keywords="voice-assistant wake-word vosk tts websocket agent",
    python_requires=">=3.9",
    install_requires=[
        "numpy>=1.21.0",
        "PyYAML>=6.0",
        "requests>=2.25.0",
        "psutil>=5.8.0",
        "websockets>=13.0",
        "vosk>=0.3.45",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "black>=22.0.0",
            "flake8>=4.0.0",
            "mypy>=0.950",
            "pre-commit>=2.17.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "focusbot=focusbot.cli:main",
        ],
    },
)
