# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Setup configuration for the CTRL MCP Gateway
"""

from setuptools import setup, find_packages

setup(
    name="ctrl-gateway",
    version="1.0.0",
    description="MCP gateway exposing device-control tools over JSON-RPC 2.0 / HTTP",
    author="Jason Cafarelli",
    packages=find_packages(include=["ctrl_gateway", "ctrl_gateway.*"]),
    python_requires=">=3.9",
    install_requires=[
        "fastapi>=0.100.0",
        "uvicorn>=0.24.0",
        "pydantic>=2.0.0",
        "PyYAML>=6.0",
        "python-dotenv>=1.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.23.0",
            "httpx>=0.27.0",
        ]
    },
    entry_points={
        "console_scripts": [
            "ctrl-gateway=ctrl_gateway.main:main",
        ]
    },
)
