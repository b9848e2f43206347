"""
External data sources: appliance reference, environment config, readings files.
"""
from .appliances import (
    ApplianceReference,
    create_session,
    load_appliance_reference,
    fetch_appliance_reference,
)
from .environment import load_environment_config, save_environment_config
from .readings import load_readings, readings_to_samples, iter_samples

__all__ = [
    'ApplianceReference',
    'create_session',
    'load_appliance_reference',
    'fetch_appliance_reference',
    'load_environment_config',
    'save_environment_config',
    'load_readings',
    'readings_to_samples',
    'iter_samples',
]
