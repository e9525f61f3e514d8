"""gitlab-migraptor

Moves GitLab projects from one group to another, carrying their container
registry images along. GitLab refuses to transfer a project whose registry
holds images, so images are pulled, the registry emptied, the project
moved and the images pushed again under the new path.
"""

__version__ = '0.1.0'

from .cli import main

__all__ = ['__version__', 'main']
