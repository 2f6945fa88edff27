"""Configuration models, runtime config and layering of file, environment and command line."""