from .builder import RadarGunBuilder
from .model import BuilderSettings, BuildResult, Installation, Node, NodeList
from .resolver import Resolver

__all__ = ["RadarGunBuilder", "BuilderSettings", "BuildResult", "Installation", "Node", "NodeList", "Resolver"]
