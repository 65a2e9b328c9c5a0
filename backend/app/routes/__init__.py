from importlib import import_module

modules = [
    'auth',
    'users',
    'workspaces',
    'organizations',
    'projects',
    'stages',
    'trials',
    'samples',
    'derived_samples',
    'batches',
    'analysis_types',
    'analyses',
    'notifications',
    'notification_preferences',
    'audit',
]

for m in modules:
    import_module(f'.{m}', __name__)

__all__ = modules
