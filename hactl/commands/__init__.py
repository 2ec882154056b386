from . import manifest, node, render

__all__ = ['manifest', 'node', 'render']
