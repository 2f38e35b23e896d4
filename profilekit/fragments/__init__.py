"""Profile fragments: declarative bundles of tools, wrapper commands and aliases."""

from .models import Fragment, FragmentError, FragmentTier, WrapperCommand
from .loader import FragmentDependencyError, FragmentLoader, load_fragment
from .scaffold import new_fragment, render_fragment_template

__all__ = [
    "Fragment",
    "FragmentError",
    "FragmentTier",
    "WrapperCommand",
    "FragmentDependencyError",
    "FragmentLoader",
    "load_fragment",
    "new_fragment",
    "render_fragment_template",
]
