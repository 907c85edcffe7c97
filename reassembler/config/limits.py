"""Registry sizing limits."""

# ECR documents 20MiB per part but behaves erratically close to it,
# so parts are capped at 10MiB.
LAYER_PART_MAX_SIZE = 10485760
LAYER_PART_REGISTRY_CEILING = 20971520

IMAGE_MANIFEST_MAX_SIZE = 4194304

# Includes the config blob.
MAX_LAYERS = 100

MANIFEST_FILENAME = "manifest.json"
