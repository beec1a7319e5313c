"""Setup script for the daotimeline package."""

from pathlib import Path

from setuptools import find_packages, setup

# Read the README file
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""

# Read requirements, splitting test-only dependencies into an extra
requirements_file = Path(__file__).parent / "requirements.txt"
requirements = []
test_requirements = []

if requirements_file.exists():
    content = requirements_file.read_text().strip()
    lines = content.split("\n")

    for line in lines:
        line = line.strip()
        # Skip empty lines and comments
        if not line or line.startswith("#"):
            continue

        # Separate testing dependencies (marked "# test" or pytest plugins)
        if "pytest" in line or line.endswith("# test"):
            test_requirements.append(line.split("#", 1)[0].strip())
        else:
            requirements.append(line.split("#", 1)[0].strip())

setup(
    name="daotimeline",
    version="0.1.0",
    description="Unified DAO event timeline: iCalendar feeds, governance proposals and AI milestones",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="DAO Timeline Team",
    # Package configuration
    packages=find_packages(exclude=["tests*", "docs*"]),
    include_package_data=True,
    # Dependencies
    install_requires=requirements,
    extras_require={
        "test": test_requirements,
    },
    python_requires=">=3.9",
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
        "Topic :: Office/Business :: Scheduling",
        "Framework :: AsyncIO",
    ],
    keywords="calendar ics rrule snapshot governance dao timeline async",
    zip_safe=False,
)
