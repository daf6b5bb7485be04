from setuptools import setup, find_packages

# Define dependencies for each component
core_deps = [
    'numpy',
    'scipy',
    'pydantic>=1.8.0',
    'pyyaml',
    'tqdm',
]

io_deps = [
    'open3d',
]

# Test dependencies
test_deps = [
    'pytest>=6.0.0',
    'pytest-cov',
    'pytest-mock',
]

# Development dependencies
dev_deps = test_deps + [
    'black',
    'flake8',
    'mypy',
    'pre-commit',
]

# Combine all dependencies for the 'all' option
all_deps = (
    core_deps +
    io_deps
)

setup(
    name='CrownShift',
    version='1.0.0',
    packages=find_packages(exclude=['tests', 'tests.*']),
    include_package_data=True,
    install_requires=core_deps,
    extras_require={
        'io': io_deps,
        'test': test_deps,
        'dev': dev_deps,
        'all': all_deps,  # Allows installation of all components at once
    },
    entry_points={
        'console_scripts': [
            'crownshift-segment=crownshift.point_cloud_analysis.main:main',
        ],
    },
)
