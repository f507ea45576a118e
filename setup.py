from setuptools import find_packages, setup

setup(
    name='sceneloader',
    version='0.1.0',
    description='sceneloader: PLY, COLMAP and Gaussian-splat loaders for 3D reconstruction pipelines',
    packages=find_packages(include=['sceneloader', 'sceneloader.*']),
    python_requires='>=3.8',
    install_requires=[
        'numpy',
        'torch',
        'omegaconf',
        'rich',
        'Pillow',
        'jaxtyping',
    ],
    extras_require={
        'test': [
            'pytest',
            'plyfile',
        ],
    },
)
