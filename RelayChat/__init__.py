"""
    ____       __            ________          __
   / __ \___  / /___ ___  __/ ____/ /_  ____ _/ /_
  / /_/ / _ \/ / __ `/ / / / /   / __ \/ __ `/ __/
 / _, _/  __/ / /_/ / /_/ / /___/ / / / /_/ / /_
/_/ |_|\___/_/\__,_/\__, /\____/_/ /_/\__,_/\__/
                   /____/

RelayChat Project - A moderated real-time group chat relay.

License: Apache-2.0 License
"""

__version__ = "1.0.0"
