"""stackgen: incremental full-stack scaffolding.

Generates FastAPI + SQLAlchemy backend and React + TypeScript frontend code
for entities, keeps cross-entity relation code consistent, and updates
scaffold files without clobbering user edits.
"""

__version__ = "0.1.0"
