"""Ministry registry synchronisation client.

Keep package import lightweight; import heavy submodules explicitly where needed.
"""

__version__ = "1.0.0"
__all__ = [
	"auth",
	"client",
	"endpoints",
	"exceptions",
	"models",
	"resolver",
	"transport",
	"utils",
]
