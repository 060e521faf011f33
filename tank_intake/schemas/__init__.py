"""Static registries: the field catalog and the workflow phase definitions."""
