from setuptools import setup, find_packages
import os

# Read the contents of README file
this_directory = os.path.abspath(os.path.dirname(__file__))
try:
    with open(os.path.join(this_directory, 'README.md'), encoding='utf-8') as f:
        long_description = f.read()
except FileNotFoundError:
    long_description = "Speed Levels - benchmark AV1 encoders across every speed preset with hyperfine"

setup(
    name="speed-levels",
    version="1.0.0",
    description="Benchmark aom, rav1e and svt-av1 across all speed presets and aggregate the timings",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["speed_levels", "speed_levels.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Multimedia :: Video :: Conversion",
        "Topic :: System :: Benchmark",
    ],
    python_requires=">=3.9",
    install_requires=[
        "tqdm>=4.0.0",
        "psutil>=5.0.0",
        "pandas>=1.3",
    ],
    extras_require={
        "dev": [
            "pytest",
            "black",
            "flake8",
        ],
    },
    entry_points={
        "console_scripts": [
            "speed-levels=speed_levels.cli:main_speed_levels",
        ],
    },
    include_package_data=True,
    zip_safe=False,
)
