"""
Setup configuration for CONTEXT_SPACE package.
"""

from pathlib import Path

from setuptools import find_packages, setup

# Read README for long description
readme_file = Path(__file__).parent / "README.md"
long_description = ""
if readme_file.exists():
    long_description = readme_file.read_text(encoding="utf-8")

setup(
    name="context-space",
    version="0.1.0",
    description="Cross-channel conversational memory and escalation service",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["context_space", "context_space.*"]),
    python_requires=">=3.10",
    install_requires=[
        "motor>=3.4.0",
        "pymongo>=4.7.0",  # SearchIndexModel / list_search_indexes
        "redis>=5.0.0",  # redis.asyncio, aclose()
        "fastapi>=0.100.0",
        "pydantic>=2.0.0",
        "numpy>=1.24.0",
        "openai>=1.0.0",  # Required for embedding providers
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "httpx>=0.24.0",  # fastapi.testclient
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Database",
        "Topic :: Software Development :: Libraries :: Python Modules",
    ],
    keywords="conversational memory identity resolution vector search mongodb redis",
    include_package_data=True,
)
