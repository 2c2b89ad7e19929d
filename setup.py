"""
Setup configuration for YardScape AI
"""
from setuptools import setup, find_packages
from pathlib import Path

# Read README
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""

setup(
    name="yardscape-ai",
    version="1.0.0",
    description="AI landscape design studio - yard photo analysis, style selection and redesign",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="YardScape Team",
    license="MIT",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["app", "server"],
    python_requires=">=3.10",
    install_requires=[
        "pydantic>=2.5.0",
        "pydantic-settings>=2.0.0",
        "python-dotenv>=1.0.0",
        "langchain-core>=0.2.0",
        "langchain-openai>=0.1.0",
        "openai>=1.0.0",
        "gradio>=4.44.0",
        "pillow>=10.0.0",
        "fastapi>=0.110.0",
        "uvicorn>=0.27.0",
        "python-multipart>=0.0.9",
        "httpx>=0.25.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21.0",
            "black>=23.0",
            "flake8>=6.0",
            "mypy>=1.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "yardscape=server:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Web Environment",
        "Framework :: FastAPI",
        "Intended Audience :: End Users/Desktop",
        "License :: OSI Approved :: MIT License",
        "Natural Language :: English",
        "Operating System :: OS Independent",
        "Programming Language :: Python",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Multimedia :: Graphics",
    ],
    keywords=[
        "landscape-design",
        "garden",
        "image-generation",
        "vision",
        "ai",
        "gradio",
        "fastapi",
    ],
)
