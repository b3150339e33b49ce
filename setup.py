from setuptools import setup
import os

def read(fname):
    with open(os.path.join(os.path.dirname(__file__), fname)) as file:
        return file.read()

setup(
  name = 'csf',
  packages = ['csf'],
  version = '0.1.0',
  license='MIT',
  description = 'The Python package csf implements honest causal survival forests. It estimates heterogeneous effects of a treatment on right-censored time-to-event outcomes from pseudo-outcomes (numerator and denominator), together with variance and out-of-bag estimates.',
  keywords = ['causal machine learning, heterogeneous treatment effects, causal forests, survival analysis'],
  long_description=read('README.txt'),
  classifiers=[
    'Development Status :: 3 - Alpha',
    'License :: OSI Approved :: MIT License',
    'Programming Language :: Python :: 3.12'
  ],
  python_requires='>=3.11',
  install_requires=[
     'numpy>=1.26',
     'ray>=2.52.1',
     'pandas>=2.3.3',
     'numba>=0.62.1',
     'scipy>=1.16.3',
     'psutil>=5.9'
     ],
  extras_require={
     'test': ['pytest>=8.0', 'pytest-check>=2.4']
     }
)
