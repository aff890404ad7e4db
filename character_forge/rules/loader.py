# rules/loader.py
import json
import os


def get_data_path(data_dir='data'):
    """Get the correct path to data directory regardless of where script is run from"""
    current_dir = os.path.dirname(os.path.abspath(__file__))
    package_root = os.path.dirname(current_dir)  #Go up one level from rules/
    return os.path.join(package_root, data_dir)


def _load_json(filename, data_dir='data'):
    filepath = os.path.join(get_data_path(data_dir), filename)
    with open(filepath, 'r', encoding='utf-8') as f:
        return json.load(f)


def load_abilities(data_dir='data'):
    """Loads ability descriptions keyed by ability name."""
    return _load_json('abilities.json', data_dir)


def load_races(data_dir='data'):
    """Loads race descriptions and traits keyed by race name."""
    return _load_json('races.json', data_dir)


def load_classes(data_dir='data'):
    """Loads class descriptions, primary abilities and proficiencies keyed by class name."""
    return _load_json('classes.json', data_dir)


def load_backgrounds(data_dir='data'):
    """Loads background and alignment descriptions."""
    return _load_json('backgrounds.json', data_dir)


def load_equipment(data_dir='data'):
    """Loads the equipment suggestion catalogue grouped by category."""
    return _load_json('equipment.json', data_dir)
