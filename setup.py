# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentstep — Diffusion Scheduling Engine                            ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝
"""
Latentstep build configuration.

The repository root is the ``latentstep`` package; sub-packages map onto
their directories below it.  Pure Python, no compiled extensions.

Build
-----
    pip install -e .                          # editable install
    pip install -e ".[test]"                  # with the test extra
    python -m build                           # sdist + wheel
"""
import os

from setuptools import setup

# ── Package metadata ──
_readme = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'README.md')
try:
    with open(_readme, 'r', encoding='utf-8') as fh:
        long_description = fh.read()
except FileNotFoundError:
    long_description = ''

setup(
    name='latentstep',
    version='0.1.0',
    author='Pictofeed, LLC',
    author_email='engineering@pictofeed.io',
    description=(
        'Diffusion scheduling engine — Euler ancestral and LMS schedulers '
        'with a model-agnostic denoising pipeline'
    ),
    long_description=long_description,
    long_description_content_type='text/markdown',
    url='https://github.com/pictofeed/latentstep',
    license='Proprietary',

    package_dir={
        'latentstep': '.',
        'latentstep.diffusion': 'diffusion',
        'latentstep.utils': 'utils',
    },
    packages=[
        'latentstep',
        'latentstep.diffusion',
        'latentstep.utils',
    ],

    python_requires='>=3.10',
    install_requires=[
        'numpy>=1.24',
        'PyYAML>=6.0',
        'tqdm>=4.64',
    ],
    extras_require={
        'test': [
            'pytest>=7.0',
        ],
    },

    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Developers',
        'Intended Audience :: Science/Research',
        'License :: Other/Proprietary License',
        'Operating System :: OS Independent',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Topic :: Scientific/Engineering :: Artificial Intelligence',
    ],
    zip_safe=False,
)
