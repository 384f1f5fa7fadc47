"""Setup configuration for git-ai metrics."""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

OTEL_REQUIRES = [
    "opentelemetry-api>=1.20.0",
    "opentelemetry-sdk>=1.20.0",
    "opentelemetry-exporter-otlp-proto-grpc>=1.20.0",
    "opentelemetry-exporter-otlp-proto-http>=1.20.0",
]

setup(
    name="git-ai-metrics",
    version="0.1.0",
    author="git-ai",
    description="Multi-tier metrics delivery for git-ai: hosted API, SQLite fallback and OpenTelemetry export",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/acunniffe/git-ai",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.9",
    install_requires=[
        "pydantic>=2.0.0",
        "httpx>=0.24.0",
        "python-dotenv>=1.0.0",
    ],
    extras_require={
        "otel": OTEL_REQUIRES,
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.0.0",
            "black>=23.0.0",
            "ruff>=0.1.0",
        ] + OTEL_REQUIRES,
    },
    entry_points={
        "console_scripts": [
            "git-ai-metrics=git_ai_metrics.cli:main",
        ],
    },
)
