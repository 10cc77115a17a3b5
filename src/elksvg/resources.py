from importlib import resources


def bridge_script():
    """Context manager yielding a filesystem path to the node layout bridge."""
    return resources.as_file(resources.files(__package__).joinpath("data/elk_layout.js"))
