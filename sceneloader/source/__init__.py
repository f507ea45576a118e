from .file import File, open_files
