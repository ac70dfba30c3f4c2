"""Value types shared by every licensage pipeline stage."""
