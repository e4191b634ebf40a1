"""
Setup configuration for the replykit package.
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

with open("requirements.txt", "r", encoding="utf-8") as fh:
    requirements = [line.strip() for line in fh if line.strip() and not line.startswith("#")]

setup(
    name="replykit",
    version="0.1.0",
    author="replykit Contributors",
    description="Fluent HTTP replies, static files and convention based views for ASGI applications",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["replykit", "replykit.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Libraries :: Python Modules",
        "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.9",
    install_requires=requirements,
    extras_require={
        "server": ["uvicorn", "hypercorn"],
        "dev": [
            "pytest>=6.0",
            "anyio",
            "pytest-cov",
            "ruff",
            "mypy",
        ],
    },
)
