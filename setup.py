from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

with open("requirements.txt", "r", encoding="utf-8") as fh:
    requirements = [line.strip() for line in fh if line.strip() and not line.startswith("#")]

setup(
    name="fractal-explorer",
    version="1.0.0",
    author="Fractal Explorer",
    description="Escape-time fractal rendering: Mandelbrot, Julia, Burning Ship and Mandelbox",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 5 - Production/Stable",
        "Intended Audience :: Science/Research",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Topic :: Scientific/Engineering :: Mathematics",
        "Topic :: Multimedia :: Graphics",
    ],
    python_requires=">=3.8",
    install_requires=requirements,
    extras_require={
        "jit": ["numba>=0.57"],
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "fractal-explorer=fractal_explorer.cli.main:main",
        ],
    },
)
