"""
Vehicle Docs — vision capture processors for vehicle documents.

Architecture: Registry → Extract → Validate → Enrich → Format
Kinds:        VIN, license plate, driver's license, insurance card, odometer
"""

__version__ = "1.0.0"
