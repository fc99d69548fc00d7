from config.settings import UBAHN_API_URL, UBAHN_SEARCH_UI_API_URL, TOPCODER_USERS_API

base_url = UBAHN_API_URL

status_base_url = UBAHN_SEARCH_UI_API_URL

topcoder_users_url = TOPCODER_USERS_API

lookup_apis = {
    "users": "/users",
    "skillsProviders": "/skillsProviders",
    "skills": "/skills",
    "achievementsProviders": "/achievementsProviders",
    "attributeGroups": "/attributeGroups",
    "attributes": "/attributes",
}

user_sub_record_apis = {
    "skills": "/users/{user_id}/skills",
    "achievements": "/users/{user_id}/achievements",
    "attributes": "/users/{user_id}/attributes",
    "externalProfiles": "/users/{user_id}/externalProfiles",
}

upload_status_api = "/uploads/{upload_id}"
