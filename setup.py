"""Setup file for development installation."""

from setuptools import setup, find_namespace_packages

setup(
    name="craftcurio-chat",
    version="0.1.0",
    packages=find_namespace_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.10",
    install_requires=[
        "fastapi>=0.110",
        "pydantic>=2.5",
        "pydantic-settings>=2.1",
        "python-socketio>=5.11",
        "python-jose[cryptography]>=3.3",
        "httpx>=0.27",
        "structlog>=23.1",
        "prometheus-client>=0.19",
        "opentelemetry-instrumentation-fastapi>=0.43b0",
        "google-generativeai>=0.5",
        "uvicorn>=0.27",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "craftcurio-chat=craftcurio_chat.api.app:main",
        ],
    },
)
