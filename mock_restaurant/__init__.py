# Mock restaurant backend
