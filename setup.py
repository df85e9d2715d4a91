from setuptools import setup, find_packages
from pathlib import Path

package_name = 'namespace-group-operator'
description = (
    'A Kubernetes Operator that keeps Keycloak groups in sync with the '
    'namespaces of a cluster.'
)
author = 'namespace-group-operator developers'
license = 'MIT'
pypi_classifiers = [
    'Development Status :: 4 - Beta',
    'License :: OSI Approved :: MIT License',
    'Programming Language :: Python :: 3.10'
]
keywords = ['kubernetes', 'keycloak', 'operator']
readme = Path(__file__).parent / 'README.rst'

# Core dependencies
install_requires = [
    'kopf>=1.37',
    'kubernetes>=29.0.0',
    'requests>=2.31',
    'structlog>=24.1.0',
    'urllib3>=1.26',
]

# Test dependencies
tests_require = [
    'pytest>=7.4',
    'pyyaml>=6.0',
]
tests_require += install_requires

# Optional dependencies (like for dev)
extras_require = {
    'test': tests_require,
    # For development environments
    'dev': tests_require,
}

setup(
    name=package_name,
    version='0.1.0',
    description=description,
    long_description=readme.read_text(),
    author=author,
    license=license,
    classifiers=pypi_classifiers,
    keywords=keywords,
    package_dir={'': 'src'},
    packages=find_packages('src', exclude=['docs', 'tests']),
    python_requires='>=3.10',
    install_requires=install_requires,
    extras_require=extras_require,
    entry_points={
        'console_scripts': [
            'namespace-group-operator = namespacegroupoperator.startup:main',
        ],
    },
    include_package_data=True
)
