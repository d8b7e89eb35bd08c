"""Architecture boundary checks for a vertical-sliced Go repository."""