"""
Grant Portal Test Fixtures Package
Factories and actor helpers shared by the service and API tests.
"""

from .factories import *
