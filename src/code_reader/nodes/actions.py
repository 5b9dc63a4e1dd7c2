class Actions:
    IMPROVE_BASIC_INPUT = "improveBasicInput"
    DO_ANALYZE = "doAnalyze"
    GET_ENTRY_FILE = "getEntryFile"
    ASK_USER_FEEDBACK = "askUserFeedback"
    DO_REDUCE = "doReduce"
    ALL_FILES_ANALYZED = "allFilesAnalyzed"
