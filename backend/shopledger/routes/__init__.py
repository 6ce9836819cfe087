# Overview: Flask blueprints, one per resource, all mounted under /api.
