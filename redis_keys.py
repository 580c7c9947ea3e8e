REDIS_ROOMS_KEY = "pairchat:rooms" # whole room table as one JSON document

# **Example `pairchat:rooms` value**
# {
#   "ROOMCODE": {
#     "password": "xxx",
#     "messages": [{"id", "type", "name", "text" | "url", "ts"}],
#     "createdAt": 1700000000000
#   }
# }
