import codecs
import os
import re

from setuptools import find_packages
from setuptools import setup


def read_file(filename, encoding='utf8'):
    """Read unicode from given file."""
    with codecs.open(filename, encoding=encoding) as fd:
        return fd.read()


here = os.path.abspath(os.path.dirname(__file__))

# read version number (and other metadata) from package init
init_fn = os.path.join(here, 'acmeproxy', '__init__.py')
meta = dict(re.findall(r"""__([a-z]+)__ = '([^']+)""", read_file(init_fn)))

readme = read_file(os.path.join(here, 'README.rst'))
version = meta['version']

install_requires = [
    'acme>=2.0.0',
    'bcrypt>=4.0.0',
    'ConfigArgParse>=1.5.3',
    'configobj>=5.0.6',
    'cryptography>=43.0.0',
    'importlib_metadata>=8.6.1; python_version < "3.10"',
    'josepy>=2.0.0',
    'PyYAML>=5.1',
    'requests>=2.20.0',
]

test_extras = [
    'pytest',
    'pytest-xdist',
]

setup(
    name='acmeproxy',
    version=version,
    description="ACME dns-01 challenge relay",
    long_description=readme,
    license='MIT',
    python_requires='>=3.9',
    classifiers=[
        'Development Status :: 4 - Beta',
        'Environment :: Console',
        'Environment :: No Input/Output (Daemon)',
        'Intended Audience :: System Administrators',
        'Operating System :: POSIX :: Linux',
        'Programming Language :: Python',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3 :: Only',
        'Topic :: Internet :: Name Service (DNS)',
        'Topic :: Internet :: WWW/HTTP :: WSGI :: Server',
        'Topic :: Security',
        'Topic :: System :: Systems Administration',
    ],

    packages=find_packages(exclude=['docs', 'examples', 'venv']),
    include_package_data=True,

    install_requires=install_requires,
    extras_require={
        'test': test_extras,
    },

    entry_points={
        'console_scripts': [
            'acmeproxy = acmeproxy.main:main',
        ],
        'acmeproxy.providers': [
            'exec = acmeproxy._internal.plugins.exec_hook:ExecProvider',
            'exec-raw = acmeproxy._internal.plugins.exec_hook:RawExecProvider',
            'httpreq = acmeproxy._internal.plugins.httpreq:HttpreqProvider',
            'httpreq-raw = acmeproxy._internal.plugins.httpreq:RawHttpreqProvider',
        ],
    },
)
