# This module handles state composition

# +---------------------+   +---------------------+   +---------------------+
# |   Conversation      |   |     Knowledge       |   |      Persona        |
# |---------------------|   |---------------------|   |---------------------|
# | Actors              |   | Embedded message    |   | Bio / lore samples  |
# | Recent messages     |   | Fragment search     |   | Topics, adjective   |
# | Goals               |   +---------------------+   | Examples, style     |
# | Attachments window  |   |   Interactions      |   +---------------------+
# +---------------------+   |---------------------|
#                           | Shared rooms        |
#                           +---------------------+
#           \                      |                      /
#            \                     v                     /
#          +-------------------------------------------+
#          |                Base State                 |
#          +-------------------------------------------+
#                               |
#                               v
#          +-------------------------------------------+
#          |  Validated actions / evaluators           |
#          |  Provider text                            |
#          +-------------------------------------------+
#                               |
#                               v
#                  [template -> model invoker]
