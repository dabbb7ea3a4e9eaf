#!/usr/bin/env python3
"""
Setup script for the live chat client
"""

from setuptools import setup, find_packages

setup(
    name="livechat",
    version="0.0.1",
    description="Terminal client for a token-authenticated WebSocket chat room",
    packages=find_packages(include=["chatclient", "chatclient.*", "chatshared", "chatshared.*"]),
    install_requires=[
        "websockets==15.0",
        "httpx==0.27.2",
        "click==8.1.7",
        "typer==0.12.3",
        "rich==13.9.2",
        "aioconsole==0.8.1",
        "PyYAML==6.0.2",
    ],
    extras_require={
        "test": [
            "pytest==8.4.2",
            "pytest-asyncio==1.2.0",
        ],
    },
    python_requires=">=3.10",
    entry_points={
        'console_scripts': [
            'livechat=chatclient.chat_cli:main',
        ],
    },
)
