"""
API route modules, one ``APIRouter`` per feature area
"""
