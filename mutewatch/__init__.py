"""mutewatch - default input source mute monitor"""
