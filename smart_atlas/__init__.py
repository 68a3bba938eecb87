"""Atlas job execution, hosting and file I/O for thermal globe imagery"""
