"""
GraphQL query templates for the indexed graph service.

Entity ids are lower-case addresses. Numeric fields may arrive as
strings (BigInt) and are parsed by the callers.
"""

GROUPS_BY_LEVEL_QUERY = """
  query GetGroupsByLevel($levelId: Int!, $first: Int!) {
    blocks(
      where: { levelId: $levelId }
      orderBy: createdAt
      orderDirection: asc
      first: $first
    ) {
      id
      owner {
        id
      }
      levelId
      status
      invitedCount
      createdAt
      completedAt
      members {
        id
      }
    }
  }
"""

GROUP_DETAIL_QUERY = """
  query GetBlockDetails($blockId: String!) {
    block(id: $blockId) {
      id
      owner {
        id
        level
        referralCode
      }
      levelId
      status
      invitedCount
      createdAt
      completedAt
      members {
        id
        position
        member {
          id
        }
      }
    }
  }
"""

USER_GROUPS_QUERY = """
  query GetUserBlocks($userId: String!) {
    user(id: $userId) {
      id
      level
      referralCode
      blocks {
        id
        levelId
        status
        invitedCount
        createdAt
        completedAt
      }
    }
  }
"""
