"""Setup script for reassembler."""

from setuptools import setup, find_packages

with open("requirements.txt", "r") as f:
    requirements = [line for line in f.read().splitlines() if line and not line.startswith("#")]

setup(
    name="docker-reassembler",
    version="1.0.0",
    description="Reassembles Docker images exported to S3 into an ECR repository",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=requirements,
    extras_require={
        'test': ['pytest>=7.0.0'],
    },
    entry_points={
        "console_scripts": [
            "reassembler=reassembler.main:main",
        ],
    },
    python_requires=">=3.8",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: System Administrators",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
)
